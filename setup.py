from pathlib import Path

from setuptools import find_packages, setup

readme_file = Path(__file__).parent / "README.md"
if readme_file.exists():
    with readme_file.open() as f:
        long_description = f.read()
else:
    long_description = ""

setup(
    name="rollback-csr-approver",
    version="0.1.0",
    description="Approve kubelet CSRs after control plane certificate expiry",
    long_description=long_description,
    long_description_content_type="text/markdown",
    license="Apache 2.0",
    keywords="kubernetes csr kubelet certificates",
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Environment :: Console",
        "Intended Audience :: System Administrators",
        "License :: OSI Approved :: Apache Software License",
        "Operating System :: POSIX :: Linux",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python",
    ],
    python_requires=">=3.10",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    install_requires=[
        "click",
        "cryptography>=42",
        "kubernetes",
        "sentry-sdk",
        "urllib3",
    ],
    extras_require={
        "test": [
            "pytest",
            "pytest-mock",
        ]
    },
    entry_points={
        "console_scripts": [
            "csr-approver=csr_approver.cli:main",
        ]
    },
)
