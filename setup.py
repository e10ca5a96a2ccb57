#
# (c) Copyright 2022 by Coinkite Inc. This file is covered by license found in COPYING-CC.
#
#
# USB key device protocol and python support library
#
import re

# To use this command to install and yet be able to edit the code (here). Great for dev:
#
#   pip install --editable .
#
# with cli dependencies
#
#   pip install --editable '.[cli]'
#
# with test dependencies
#
#   pip install --editable '.[test]'
#
from setuptools import setup

# read version w/o importing the package (needs the crypto libs below)
with open("hidkey/__init__.py", "r") as fh:
    __version__ = re.search(r"^__version__ = '([^']+)'", fh.read(), re.M).group(1)

# these minimum versions are tested, some earlier values would probably work too.
requirements = [
    'hidapi>=0.14.0',
    'coincurve>=18.0.0',
    'pycryptodome>=3.15.0',
]

cli_requirements = [
    'click>=8.0.3',
]

test_requirements = [
    'pytest',
] + cli_requirements

with open("README.md", "r") as fh:
    long_description = fh.read()

setup(
    name='hidkey-protocol',
    version=__version__,
    packages=[ 'hidkey' ],
    python_requires='>=3.10',
    install_requires=requirements,
    extras_require={
        'cli': cli_requirements,
        'test': test_requirements,
    },
    description="Talk to an ethereum key device over USB HID, and make signatures nodes accept",
    long_description=long_description,
    long_description_content_type="text/markdown",
    entry_points='''
        [console_scripts]
        hidkey=hidkey.cli:main
    ''',
    classifiers=[
        'Operating System :: POSIX :: Linux',
        'Operating System :: Microsoft :: Windows',
        'Operating System :: MacOS :: MacOS X',
    ],
)
