from setuptools import setup, find_packages

setup(
    name='labctl',
    version='0.1.0',
    packages=find_packages(exclude=['labctl.tests']),
    include_package_data=True,
    install_requires=[
        'typer',
        'fastapi',
        'uvicorn',
        'python-dotenv',
        'pyyaml',
        'jsonschema',
        'pydantic>=2',
        'jinja2',
    ],
    package_data={'labctl': ['templates/*.j2', 'scripts/*.sh']},
    extras_require={
        'test': [
            'pytest',
            'httpx',
        ],
    },
    entry_points={
        'console_scripts': [
            'labctl=labctl.cli:run'
        ]
    },
    author='Your Name',
    description='Topology planner and Vagrant scaffold generator for Kubernetes labs',
    classifiers=[
        'Programming Language :: Python :: 3',
        'Operating System :: OS Independent',
    ],
    python_requires='>=3.8',
)
