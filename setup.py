#!/usr/bin/env -S python3 -B -u
"""
Setup script for fasttrace package - Carrier Route Tester
"""

from setuptools import setup, find_packages
import os

# Read the README file for long description
def read_readme():
    """Read README.md for package long description."""
    readme_path = os.path.join(os.path.dirname(__file__), 'README.md')
    if os.path.exists(readme_path):
        with open(readme_path, 'r', encoding='utf-8') as f:
            return f.read()
    return "fasttrace - Route tester for Chinese carrier networks"

# Read requirements from requirements.txt
def read_requirements():
    """Read requirements from requirements.txt file."""
    requirements_path = os.path.join(os.path.dirname(__file__), 'requirements.txt')
    if os.path.exists(requirements_path):
        with open(requirements_path, 'r', encoding='utf-8') as f:
            return [line.strip() for line in f if line.strip() and not line.startswith('#')]
    return []

# Define package metadata
setup(
    name='fasttrace',
    version='1.0.0',
    description='fasttrace - Route tester for Chinese carrier networks',
    long_description=read_readme(),
    long_description_content_type='text/markdown',
    author='Network Analysis Tool',
    author_email='',
    license='MIT',

    # Package structure - use fasttrace namespace
    packages=['fasttrace'] + ['fasttrace.' + pkg for pkg in find_packages(where='src')],
    package_dir={
        'fasttrace': 'src',
    },
    include_package_data=True,

    # Python version requirement
    python_requires='>=3.8',

    # Dependencies from requirements.txt
    install_requires=read_requirements(),

    # Optional dependencies
    extras_require={
        'dev': [
            'pytest>=6.0.0',
            'pytest-cov>=2.0.0',
            'flake8>=3.8.0',
        ],
    },

    # Entry points for command-line scripts
    entry_points={
        'console_scripts': [
            'fasttrace=fasttrace.shell.fast_trace:main',
        ],
    },

    # Classification
    classifiers=[
        'Development Status :: 4 - Beta',
        'Intended Audience :: System Administrators',
        'Intended Audience :: Developers',
        'License :: OSI Approved :: MIT License',
        'Operating System :: POSIX :: Linux',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3.8',
        'Programming Language :: Python :: 3.9',
        'Programming Language :: Python :: 3.10',
        'Topic :: System :: Networking',
        'Topic :: System :: Systems Administration',
    ],

    # Keywords
    keywords='traceroute networking routing carrier geolocation',
)
