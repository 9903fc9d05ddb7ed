"""A Twisted library for authenticating against Active Directory"""
__version__ = "1.0.0"

__title__ = "adldap"
__description__ = "A Twisted library for authenticating against Active Directory"

__license__ = "MIT"
__author__ = "The adldap developers"
__copyright__ = "Copyright (c) 2017-2026 {}".format(__author__)
