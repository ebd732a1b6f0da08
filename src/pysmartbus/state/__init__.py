"""Session state layer.

Statistics and events derived strictly from sampler output. Nothing here
is persisted; a new supervisor starts from empty statistics.
"""
