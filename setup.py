from setuptools import setup, find_packages

setup(
    name='planctl',
    version='0.1.0',
    packages=find_packages(exclude=['*.tests', '*.tests.*']),
    include_package_data=True,
    install_requires=[
        'typer[all]',
        'ansible',
        'ansible-runner',
        'python-dotenv',
        'pyyaml',
        'pydantic>=2.6',
        'cryptography>=40',
    ],
    extras_require={
        'test': [
            'pytest',
        ],
    },
    entry_points={
        'console_scripts': [
            'planctl=planctl.cli:app'
        ]
    },
    description='A plan driven CLI for installing, upgrading and operating Kubernetes clusters with Ansible',
    classifiers=[
        'Programming Language :: Python :: 3',
        'Operating System :: OS Independent',
    ],
    python_requires='>=3.8',
)
