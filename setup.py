from setuptools import setup, find_packages

setup(
    name="sslvrfy",
    version="0.1.0",
    description="Retrieve and independently verify the certificate chain a TLS server presents",
    author="WebTechnologies S.r.o.",
    author_email="dgtlmoon@gmail.com",
    packages=find_packages(),
    python_requires=">=3.9",
    install_requires=[
        "pyopenssl>=25.0.0",
        "cryptography>=43.0.0",
        "certifi",
        "structlog>=23.1.0",
        "pydantic>=2.0",
        "pydantic-settings>=2.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "sslvrfy = sslvrfy.cli:main"
        ]
    }
)
