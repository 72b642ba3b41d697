import setuptools

setuptools.setup(
    name="dicecert",
    version="1.0.0",
    author="The dicecert committers",
    description=("DICE DevIK/DevAK X.509 certificate generation"),
    license="Apache Software License",
    packages=setuptools.find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        'cryptography>=37.0',
        'intelhex>=2.2.1',
        'click',
        'PyYAML>=5.1',
    ],
    extras_require={
        'test': ['pytest'],
    },
    entry_points={
        "console_scripts": ["dicecert=dicecert.main:dicecert"]
    },
    classifiers=[
        "Programming Language :: Python :: 3",
        "Development Status :: 4 - Beta",
        "Topic :: Security :: Cryptography",
        "License :: OSI Approved :: Apache Software License",
    ],
)
