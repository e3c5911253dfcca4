# (C) Datadog, Inc. 2018
# All rights reserved
# Licensed under a 3-clause BSD style license (see LICENSE)
from setuptools import setup
from codecs import open
from os import path

HERE = path.abspath(path.dirname(__file__))

# Get version info
ABOUT = {}
with open(path.join(HERE, "vsphere_influxdb", "__about__.py")) as f:
    exec(f.read(), ABOUT)

# Get the long description from the README file
with open(path.join(HERE, 'README.md'), encoding='utf-8') as f:
    long_description = f.read()


# Parse requirements
def get_requirements(fpath):
    with open(path.join(HERE, fpath), encoding='utf-8') as f:
        return [line.strip() for line in f if line.strip() and not line.startswith('#')]


setup(
    name='vsphere-influxdb',
    version=ABOUT["__version__"],
    description='Send vSphere performance metrics to InfluxDB',
    long_description=long_description,
    long_description_content_type='text/markdown',
    keywords='vsphere vcenter influxdb performance metrics',
    license='BSD',

    # See https://pypi.python.org/pypi?%3Aaction=list_classifiers
    classifiers=[
        'Development Status :: 5 - Production/Stable',
        'Intended Audience :: System Administrators',
        'Topic :: System :: Monitoring',
        'License :: OSI Approved :: BSD License',
        'Programming Language :: Python :: 3',
    ],

    packages=['vsphere_influxdb'],
    python_requires='>=3.7',

    # Run-time dependencies
    install_requires=get_requirements('requirements.in'),
    extras_require={'test': get_requirements('requirements-dev.txt')},

    entry_points={
        'console_scripts': ['vsphere-influxdb = vsphere_influxdb.cli:main'],
    },

    # Extra files to ship with the wheel package
    package_data={'vsphere_influxdb': ['data/conf.yaml.example']},
    include_package_data=True,
)
