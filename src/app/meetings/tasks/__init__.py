"""Task tracking collaborators -- mirror standup outcomes into a work tracker.

TaskTracker is the interface the finalizer calls; AzureDevOpsTaskTracker
is the Azure Boards backend and NullTaskTracker the unconfigured default.
"""
