"""
Transport to the control plane.

A transport provides a single capability, invoke(method, path, body), which returns a
Response carrying the status code and the decoded body. Interpreting the status code
is left to the caller, via check_response(), so that the store can decide which statuses
are errors for which calls.
"""
