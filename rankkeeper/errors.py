class RankKeeperError(Exception):
    """Base class for errors raised by rankkeeper"""


class RemoteSyncError(RankKeeperError):
    """The remote endpoint could not be reached or rejected the request"""


class RemotePayloadError(RankKeeperError):
    """The remote endpoint answered with a payload that cannot be used"""
