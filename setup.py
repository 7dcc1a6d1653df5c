"""Setup configuration for emission_raster package."""

from setuptools import setup, find_packages

# Define package requirements
REQUIRED_PACKAGES = [
    # Core scientific computing
    'numpy>=1.20.0',
    'pandas>=1.3.0',
    'scipy>=1.7.0',

    # Geometry: segment buffers, spatial index
    'shapely>=2.0.0',

    # Visualization
    'matplotlib>=3.4.0',
]

# Optional dependencies for enhanced functionality
OPTIONAL_PACKAGES = {
    'dev': [
        'pytest>=6.0.0',
        'pytest-cov>=2.12.0',
        'black>=21.0.0',
        'flake8>=3.9.0',
    ]
}

setup(
    name='emission_raster',
    version='0.1.0',
    author='emission_raster contributors',
    description='Distribute road segment emissions onto regular rasters',
    packages=find_packages(exclude=['tests', 'tests.*', 'examples']),
    classifiers=[
        'Development Status :: 3 - Alpha',
        'Intended Audience :: Science/Research',
        'Topic :: Scientific/Engineering :: Atmospheric Science',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3.8',
        'Programming Language :: Python :: 3.9',
        'Programming Language :: Python :: 3.10',
        'Programming Language :: Python :: 3.11',
    ],
    python_requires='>=3.8',
    install_requires=REQUIRED_PACKAGES,
    extras_require=OPTIONAL_PACKAGES,
    entry_points={
        'console_scripts': [
            'emission-raster=emission_raster.cli:main',
        ],
    },
)
