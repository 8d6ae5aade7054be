"""Deploy Yandex Cloud Serverless Functions from source trees."""

__version__ = "0.1.0"
