"""ScanGuard scanning core.

This package contains the scan target model, the chunked stream reader, the
verdict policy processor and the coordinator that ties them to a scan
engine for a single file.
"""
