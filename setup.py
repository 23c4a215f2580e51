#!/usr/bin/env python

# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

import sys
from typing import Any, Dict, List, cast

import setuptools


def get_version() -> str:
    azdeploy: Dict[str, Any] = {}
    with open("azdeploy/__version__.py") as fh:
        # Exec our own __version__.py to pull out version string
        # without import
        exec(fh.read(), azdeploy)  # nosec
    version = azdeploy["__version__"]
    if "-v" in sys.argv:
        index = sys.argv.index("-v")
        sys.argv.pop(index)
        version += ".dev" + sys.argv.pop(index)
    return cast(str, version)


def read_requirements(path: str) -> List[str]:
    with open(path) as f:
        requirements = [x.strip() for x in f.read().splitlines()]
    # remove comments and any installer options
    return [x.split(" ")[0] for x in requirements if x and not x.startswith("#")]


setuptools.setup(
    name="azdeploy",
    version=get_version(),
    description="Deploy build artifacts to Azure App Service, Functions and Spring Cloud",
    long_description=open("README.md").read(),
    long_description_content_type="text/markdown",
    author="Microsoft Corporation",
    license="MIT",
    packages=setuptools.find_packages(exclude=["tests", "tests.*"]),
    entry_points={"console_scripts": ["azdeploy=azdeploy.__main__:main"]},
    install_requires=read_requirements("requirements.txt"),
    extras_require={"dev": read_requirements("requirements-dev.txt")},
    python_requires=">=3.8",
    zip_safe=False,
    include_package_data=True,
)
