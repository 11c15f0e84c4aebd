"""
Setup script for the Chat Quota Proxy
"""

from setuptools import setup, find_packages

setup(
    name="chat-quota-proxy",
    version="0.1.0",
    description="Chat Quota Proxy - per-user admission control in front of a paid chat-completion API",
    author="Stack Consult",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "fastapi>=0.110.0",
        "pydantic>=2.0.0",
        "httpx>=0.25.0",
        "uvicorn>=0.23.0",
        "python-dotenv>=1.0.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "chat-quota-proxy=chatproxy.api.main:main",
        ],
    },
    python_requires=">=3.8",
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
    ],
)
