##############################################################################
# Copyright (c) Lawrence Livermore National Security, LLC and other Merlin
# Project developers. See top-level LICENSE and COPYRIGHT files for dates and
# other details. No copyright assignment is required to contribute to Merlin.
##############################################################################

"""
The `common` package contains building blocks shared by every other part of
backupdb.

Modules:
    enums.py: Enumerations for notification kinds and CLI return codes.
    serializing_lock.py: The single mutex that serializes every store operation.
"""
