from setuptools import setup, find_packages

setup(
    name="bing-cmd",
    version="0.1.0",
    py_modules=["bing_cli", "bing_api", "reconciler"],
    packages=find_packages(exclude=["tests"]),
    install_requires=[
        "requests>=2.27",
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "bing=bing_cli:main",
        ],
    },
)
