"""Page content targeting -- versions, request context and version resolution.

Provides the PageVersionModel table, Pydantic schemas for versions, tags and
request context, TagMatcher for exclusionary tag matching, and
PageVersionResolver which picks the version to render for a request and
applies publishing updates.
"""
