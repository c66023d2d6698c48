from setuptools import setup, find_packages

setup(
    name="dawatch",
    version="1.0.0",
    description="Multi-endpoint blockchain RPC data availability watchdog",
    packages=find_packages(exclude=["tests", "tests.*", "examples"]),
    python_requires=">=3.10",
    install_requires=[
        "websockets>=12.0",
        "requests>=2.31",
        "python-dotenv>=1.0",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
    ],
)
