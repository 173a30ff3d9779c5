"""Build Uploader — publish new cloud builds through an external upload tool.

Polls the cloud build API for each configured watch target, downloads
and unpacks every new successful build once, runs the publishing tool
on it and posts the outcome to a webhook.
"""

__version__ = "1.0.0"
__app_name__ = "Build Uploader"
