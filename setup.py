from setuptools import setup, find_packages

setup(
    name='featuremesh',
    version='0.1.0',
    description='Geographic vector features to render-ready triangle meshes',
    packages=find_packages(exclude=['examples']),
    python_requires='>=3.9',
    install_requires=[
        'numpy',
        'numba',
        'pyproj',
        'matplotlib',
        'mapbox_earcut',
    ],
    extras_require={
        'tests': ['pytest'],
    },
)
