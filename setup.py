"""Setup configuration for gitlab_extra_exporter"""

from setuptools import setup, find_packages

setup(
    name="gitlab-extra-exporter",
    version="0.1.0",
    description=(
        "Prometheus exporter for GitLab merge request metrics: approvals, "
        "durations, changed files and line changes."
    ),
    author="GitLab Extra Exporter Contributors",
    author_email="",
    python_requires=">=3.10",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    install_requires=[
        "requests>=2.28.0",
        "prometheus-client>=0.14.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
        "dev": [
            "pytest>=7.0",
            "black>=22.0",
            "flake8>=4.0",
            "mypy>=0.950",
        ],
    },
    entry_points={
        "console_scripts": [
            "gitlab-extra-exporter=gitlab_extra_exporter.main:main",
        ],
    },
)
