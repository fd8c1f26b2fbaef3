from setuptools import setup

setup(
    name='lockproxy',
    version='0.1.0',
    description='Cross-chain lock proxy: transfer payload codec, bindings and lock/unlock core',
    author='Ziver-opensource',
    package_dir={'lockproxy': 'src/lockproxy'},
    packages=['lockproxy', 'lockproxy.cli'],
    include_package_data=True,
    python_requires='>=3.8',
    install_requires=[
        'click>=7.0',
        'rich>=9.0'
    ],
    extras_require={
        'tests': ['pytest>=7.0'],
    },
    entry_points={
        'console_scripts': [
            'lockproxy = lockproxy.cli.main:cli'
        ]
    },
    classifiers=[
        'Programming Language :: Python :: 3',
    ],
)
