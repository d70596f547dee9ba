#!/usr/bin/env python3
# coding: utf-8
from setuptools import setup

setup(
    name = "certoracle",
    version = "0.1.0",
    author = u"Certoracle contributors",
    description = "File backed OCSP responder",
    license = "MIT",
    keywords = "flask ocsp x509 revocation",
    packages=[
        "certoracle.responder",
        "certoracle.responder.api",
    ],
    long_description=open("README.md").read(),
    long_description_content_type="text/markdown",
    python_requires=">=3.8",
    install_requires=[
        "click",
        "cryptography>=43",
        "flask",
        "prometheus_client",
        "pytz",
        "PyYAML",
    ],
    extras_require={
        "test": [
            "pytest",
        ],
    },
    entry_points={
        "console_scripts": [
            "certoracle = certoracle.responder.cli:entry_point",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Intended Audience :: System Administrators",
        "License :: OSI Approved :: MIT License",
        "Natural Language :: English",
        "Operating System :: POSIX :: Linux",
        "Programming Language :: Python",
        "Programming Language :: Python :: 3 :: Only",
    ],
)
