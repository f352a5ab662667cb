from setuptools import setup, find_packages

setup(
    name="bank_recon",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "pandas<3",
        "numpy",
        "openpyxl",
    ],
    extras_require={
        "test": [
            "pytest",
            "pytest-dependency",
        ],
    },
    entry_points={
        "console_scripts": [
            "bankrecon=bankrecon.reconcile:main",
        ],
    },
    description="Bank statement import and reconciliation against internal ledger entries",
    python_requires=">=3.8",
)
