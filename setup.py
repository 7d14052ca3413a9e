# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

import io

from setuptools import find_packages, setup

from eeco import __version__

readme = io.open("./eeco/README.rst", encoding="utf-8").read()

setup(
    name="pyeeco",
    version=__version__,
    description="Tiered placement and power management controller for datacenter clusters",
    long_description=readme,
    long_description_content_type="text/x-rst",
    author="EECO Team",
    license="MIT License",
    platforms=["Windows", "Linux", "macOS"],
    keywords=[
        "datacenter",
        "energy-efficiency",
        "power-management",
        "resource-optimization",
        "scheduling",
        "virtual-machine",
    ],
    classifiers=[
        "Intended Audience :: Science/Research",
        "License :: OSI Approved :: MIT License",
        "Natural Language :: English",
        "Operating System :: MacOS",
        "Operating System :: Microsoft :: Windows",
        "Operating System :: POSIX",
        "Operating System :: Unix",
        "Programming Language :: Python",
        "Programming Language :: Python :: 3",
        "Topic :: System :: Distributed Computing",
    ],
    python_requires=">=3.7",
    install_requires=[
        "numpy",
        "PyYAML",
    ],
    extras_require={
        "test": ["pytest"],
    },
    packages=find_packages(exclude=["tests", "tests.*"]),
    include_package_data=True,
    package_data={
        "eeco.scheduler": ["config.yml"],
    },
    zip_safe=False,
)
