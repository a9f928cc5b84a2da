#
# Copyright (c) 2026 Wind River Systems, Inc.
#
# SPDX-License-Identifier: Apache-2.0
#
'''Errors raised while bootstrapping a Windows node.

None of them are retried internally. Every operation that raises one of
these can be re-run from the start once the cause is fixed.
'''


class BootstrapError(Exception):
    pass


class DecodeError(BootstrapError):
    pass


class TranslationError(BootstrapError):
    pass


class DocumentParseError(BootstrapError):
    pass


class ConfigRewriteError(BootstrapError):
    pass


class InvalidArgumentError(BootstrapError):
    pass


class InstallDirError(BootstrapError):
    pass


class CNIPathError(BootstrapError):
    pass


class CNIConfigError(BootstrapError):
    pass


class DirCreationError(BootstrapError):
    pass


class CopyError(BootstrapError):
    pass


class ServicePreconditionError(BootstrapError):
    pass


class ServiceError(BootstrapError):
    pass


class SettingsError(BootstrapError):
    pass
