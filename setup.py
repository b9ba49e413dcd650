import subprocess

from setuptools import setup, find_packages

with open("README.md", "r") as f:
    long_description = f.read()

# Get version from "git describe" (requires releases to be tagged vX.Y.Z and
# initial commit to be tagged v0.0.0, both with annotated tags). Outside a git
# checkout, fall back to the last released version.
try:
    git_version = subprocess.check_output(
        ['git', 'describe', '--abbrev', '--dirty'],
        text=True,
        stderr=subprocess.DEVNULL,
    )
except (subprocess.CalledProcessError, OSError):
    git_version = "v0.1.0"
version_parts = git_version.strip().lstrip('v').split('-')
version = version_parts[0]
if len(version_parts) > 1:
    version += f".dev{version_parts[1]}+{version_parts[2]}"
if len(version_parts) > 3:
    version += ".dirty"

setup(
    name="cloud-dyndns",
    version=version,
    author="Dominick C. Pastore",
    author_email="ruddr@dcpx.org",
    description="Keep cloud DNS records pointed at a dynamic IP address",
    long_description=long_description,
    long_description_content_type="text/markdown",
    license="GPL-3.0-or-later",
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: GNU General Public License v3 or later "
        "(GPLv3+)",
        "Topic :: Internet :: Name Service (DNS)",
    ],

    package_dir={"": "src"},
    packages=find_packages(where="src"),
    install_requires=[
        "requests",
        "dnspython",
    ],
    python_requires=">=3.8",
    extras_require={
        "docs": ["sphinx"],
        "test": [
            "flake8",
            "pytest",
            "pytest-cov",
            "pytest-mock",
        ]
    },
)
