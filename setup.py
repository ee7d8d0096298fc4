from setuptools import setup, find_packages
import os


def _get_long_description():
    """Get long description from README file with fallback"""
    readme_files = ['README.md', 'docs/README.md']
    for readme_file in readme_files:
        if os.path.exists(readme_file):
            with open(readme_file, 'r', encoding='utf-8') as f:
                return f.read()
    return 'Pitch detection and noise reduction for monophonic vocal audio'


test_requirements = [
    'pytest>=7.4',
    'pytest-cov>=4.1',
]

setup(
    name='vocal_pitch',
    version='0.1.0',
    author='vocal_pitch developers',
    description='Pitch detection and noise reduction for monophonic vocal audio',
    long_description=_get_long_description(),
    long_description_content_type='text/markdown',
    packages=find_packages(where='src'),
    package_dir={'': 'src'},
    install_requires=[
        # Core numerical and audio processing
        'numpy>=1.24',
        'scipy>=1.10',
        'librosa>=0.10',

        # Configuration
        'pyyaml>=6.0',
    ],
    extras_require={
        'test': test_requirements,
        'dev': test_requirements + [
            'black>=23.7',
            'isort>=5.12',
        ],
    },
    python_requires='>=3.8',
    zip_safe=False,
)
