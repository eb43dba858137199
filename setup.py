from setuptools import setup

torch = ['torch>=1.0.0']
test = ['pytest>=6.0']
all = torch + test

extras_require = {
    'all': all,
    'torch': torch,
    'test': test
}

setup(
    name='h5bind',
    version='0.1.0',
    packages=['h5bind', 'h5bind._hl', 'h5bind.utils'],
    license='GNU General Public License v3 (GPLv3)',
    description='Typed access layer over hierarchical HDF5 containers',
    python_requires='>=3.7',
    install_requires=[
        'h5py>=3.0.0',
        'numpy>=1.17.0',
        'pymongo>=3.9.0'
    ],
    extras_require=extras_require
)
