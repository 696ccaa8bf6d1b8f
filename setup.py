#!/usr/bin/env python3

import pathlib

from setuptools import setup, find_packages


PROJ_ROOT = pathlib.Path(__file__).parent


def readme():
    with open(PROJ_ROOT / 'README.rst', 'r', encoding='utf-8') as readme:
        return readme.read()


setup(
    name='ilp-sender',
    version='1.0.0',
    description='InfluxDB Line Protocol (ILP) over TCP client for QuestDB',
    long_description=readme(),
    long_description_content_type='text/x-rst',
    license='Apache License 2.0',
    platforms=['any'],
    python_requires='>=3.8',
    install_requires=[
        'cryptography>=3.1'],
    extras_require={
        'test': [
            'numpy',
            'pyyaml']},
    zip_safe=False,
    package_dir={'': 'src'},
    test_suite="test",
    packages=find_packages('src', exclude=['test']))
