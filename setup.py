"""
/setup.py

Author: Jared Moore
Date: October, 2025
"""

import setuptools

with open("requirements.txt", "r", encoding="utf-8") as file:
    requirements = file.read().splitlines()

setuptools.setup(
    name="yelp-csv",
    version="0.0.1",
    author="Jared Moore",
    author_email="jared@jaredmoore.org",
    description="Yelp JSON Lines to CSV conversion helpers",
    package_dir={"": "src"},
    packages=setuptools.find_packages(where="src"),
    classifiers=[
        "Programming Language :: Python :: 3",
        "Operating System :: OS Independent",
    ],
    python_requires=">=3.10",
    install_requires=requirements,
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "yelp-csv = yelp_csv.commands:main",
        ]
    },
)
