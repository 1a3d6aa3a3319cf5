"""
stage-loader: transactional loads of S3-staged files into a columnar warehouse.
"""

__version__ = "0.1.0"
