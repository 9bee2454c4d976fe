#!/usr/bin/env python3
"""Setup script for Azure SKU Migrator"""
from setuptools import setup, find_packages

setup(
    name="azure-sku-migrator",
    version="1.0.0",
    description="Dependency-aware migration of Azure resources off deprecated SKUs",
    author="Azure Cost Optimization Team",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "azure-core>=1.26.0",
        "azure-identity>=1.12.0",
        "azure-mgmt-resource>=21.0.0,<24",
        "azure-mgmt-compute>=29.0.0",
        "azure-mgmt-network>=22.0.0",
        "jinja2>=3.1.0",
        "pyyaml>=6.0",
        "rich>=12.0.0",
        "typer>=0.7.0",
        "tenacity>=8.0.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "azure-sku-migrator=azure_sku_migrator.cli.main:main",
        ],
    },
    python_requires=">=3.8",
)
