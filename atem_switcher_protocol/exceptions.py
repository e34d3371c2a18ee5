#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""Exceptions defined by this package"""

class AtemError(Exception):
  """Base class for all error exceptions defined by this package."""
  pass

class MalformedPacketError(AtemError):
  """A received datagram is too short to hold an ATEM packet header."""
  pass

class TransportFailureError(AtemError):
  """The UDP transport of a connection failed or could not be opened."""
  pass
