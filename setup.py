"""
Setup script for the MachineHealthCheck operator
"""

from setuptools import setup, find_packages

with open("requirements.txt", "r", encoding="utf-8") as fh:
    requirements = [line.strip() for line in fh if line.strip() and not line.startswith("#")]

setup(
    name="machine-healthcheck-operator",
    version="0.1.0",
    description="Kubernetes operator that remediates unhealthy machines selected by MachineHealthCheck policies",
    long_description="Watches MachineHealthCheck policies, evaluates the node conditions of the machines they select, and deletes or reboots the unhealthy ones.",
    long_description_content_type="text/plain",
    packages=find_packages(exclude=["tests", "tests.*"]),
    py_modules=["main"],
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: System :: Clustering",
        "Topic :: System :: Monitoring",
    ],
    python_requires=">=3.10",
    install_requires=requirements,
    extras_require={
        "dev": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.21.0",
            "pytest-mock>=3.12.0",
        ]
    },
    entry_points={
        "console_scripts": [
            "machine-healthcheck-operator=main:main",
        ],
    },
)
