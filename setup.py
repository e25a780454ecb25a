#!/usr/bin/env python

"""The setup script."""

from setuptools import setup, find_packages

with open('README.rst') as readme_file:
    readme = readme_file.read()

with open('HISTORY.rst') as history_file:
    history = history_file.read()

requirements = [
    "numpy",
    "pint",
    "pulp",
    "rich",
]

test_requirements = ['pytest>=3', ]

setup(
    author="Jose Maria Lopez Lopez",
    author_email='chechu@uniovi.es',
    python_requires='>=3.10',
    classifiers=[
        'Development Status :: 2 - Pre-Alpha',
        'Intended Audience :: Science/Research',
        'License :: OSI Approved :: MIT License',
        'Natural Language :: English',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3.10',
    ],
    description="Cloud Coalition Formation Analyzer",
    entry_points={
        'console_scripts': [
            'ccfa=ccfa.cli:main',
        ],
    },
    install_requires=requirements,
    extras_require={'test': test_requirements},
    license="MIT license",
    long_description=readme + '\n\n' + history,
    include_package_data=True,
    keywords='ccfa',
    name='ccfa',
    packages=find_packages(include=['ccfa', 'ccfa.*']),
    test_suite='tests',
    tests_require=test_requirements,
    version='0.1.0',
    zip_safe=False,
)
