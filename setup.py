# setup.py

from setuptools import setup, find_packages

setup(
    name="pool-vm-balancer",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "openstacksdk",
        "pydantic>=2",
        "requests",
    ],
    extras_require={
        "test": [
            "pytest",
        ],
    },
    entry_points={
        'console_scripts': [
            'pool-balancer=pool_balancer.cli:main',
        ],
    },
    author="Your Name",
    author_email="your.email@example.com",
    description="Threshold based VM load balancing across the hosts of a pool",
    long_description=open("README.md").read(),
    long_description_content_type="text/markdown",
    keywords="openstack virtualization load-balancing",
    python_requires=">=3.7",
)
