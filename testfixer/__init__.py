"""
testfixer
=========
Classifies failing CI test runs and proposes source corrections as a single
reviewable pull request.
"""
__version__ = "0.1.0"
