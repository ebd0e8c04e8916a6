import setuptools

setuptools.setup(
    name="nsihtool",
    version="1.0.0",
    author="The nsihtool committers",
    description=("NSIH Boot Header creation, checking and USB download "
                 "for S5P6818 bootloaders"),
    license="Apache Software License",
    packages=setuptools.find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        'intelhex>=2.2.1',
        'click',
        'PyYAML>=5.1',
        'pyusb>=1.0.2',
    ],
    extras_require={
        'test': ['pytest'],
    },
    entry_points={
        "console_scripts": ["nsihtool=nsihtool.main:nsihtool"]
    },
    classifiers=[
        "Programming Language :: Python :: 3",
        "Development Status :: 4 - Beta",
        "Topic :: Software Development :: Embedded Systems",
        "License :: OSI Approved :: Apache Software License",
    ],
)
