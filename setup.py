from setuptools import setup, find_packages


setup(
    name="phar",
    version="0.1",
    packages=find_packages(include=["phar", "phar.*"]),
    description="A read-only parser and command-line tool for PHP PHAR archives.",
    author="vercingetorx",
    install_requires=[
        "pycryptodomex>=3.23.0",
        "phpserialize>=1.3",
    ],
    entry_points={
        "console_scripts": [
            "phar=phar.cli:main",
        ]
    },
)
