"""Setup script for the RCTV kiosk appliance."""

import os
from pathlib import Path

from setuptools import find_packages, setup
from setuptools.command.develop import develop
from setuptools.command.install import install


def post_install_setup():
    """Post-installation setup to create configuration directories and show setup guidance."""
    try:
        config_dir = Path.home() / ".config" / "rctv"
        data_dir = Path.home() / ".local" / "share" / "rctv"

        for directory in [config_dir, data_dir]:
            directory.mkdir(parents=True, exist_ok=True)
            if hasattr(os, "chmod"):
                os.chmod(directory, 0o755)

        token_file = Path.home() / ".rctvtoken"
        if not token_file.exists():
            print("\n" + "=" * 60)
            print("RCTV Installation Complete!")
            print("=" * 60)
            print(f"Configuration directory: {config_dir}")
            print(f"Data directory: {data_dir}")
            print("\nNext Steps:")
            print(f"1. Put the TV login token in {token_file}, or pass --token")
            print("2. Optionally copy config/config.yaml.example to the configuration directory")
            print("3. Run 'rctv --help' to see all available options")
            print("=" * 60)

    except Exception as e:
        print(f"Warning: Post-install setup failed: {e}")
        print("You may need to create configuration directories manually.")


class PostInstallCommand(install):
    """Custom install command with post-install setup."""

    def run(self):
        install.run(self)
        post_install_setup()


class PostDevelopCommand(develop):
    """Custom develop command with post-install setup."""

    def run(self):
        develop.run(self)
        post_install_setup()


readme_file = Path(__file__).parent / "README.md"
long_description = readme_file.read_text(encoding="utf-8") if readme_file.exists() else ""

requirements_file = Path(__file__).parent / "requirements.txt"
requirements = []
dev_requirements = []

if requirements_file.exists():
    content = requirements_file.read_text().strip()
    lines = content.split("\n")

    for line in lines:
        line = line.strip()
        # Skip empty lines and comments
        if not line or line.startswith("#"):
            continue

        # Separate development dependencies
        if "pytest" in line or "development" in line.lower() or "testing" in line.lower():
            dev_requirements.append(line)
        else:
            requirements.append(line)

setup(
    name="rctv",
    version="1.0.0",
    description="Kiosk playlist display with hardware-triggered video meeting sessions",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="RCTV Team",
    packages=find_packages(exclude=["tests*", "docs*"]),
    include_package_data=True,
    install_requires=requirements,
    extras_require={
        "dev": dev_requirements
        + [
            "black>=23.0.0",
            "isort>=5.12.0",
            "mypy>=1.0.0",
        ],
        "test": dev_requirements,
    },
    python_requires=">=3.10",
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Intended Audience :: System Administrators",
        "License :: OSI Approved :: MIT License",
        "Operating System :: POSIX :: Linux",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Multimedia :: Video :: Display",
        "Topic :: System :: Hardware",
        "Framework :: AsyncIO",
    ],
    keywords="kiosk raspberry-pi chromium selenium video-conferencing digital-signage async",
    entry_points={
        "console_scripts": [
            "rctv=rctv.__main__:main",
        ],
    },
    data_files=[
        ("share/rctv/config", ["config/config.yaml.example"]),
    ],
    cmdclass={
        "install": PostInstallCommand,
        "develop": PostDevelopCommand,
    },
    zip_safe=False,
    platforms=["linux"],
)
