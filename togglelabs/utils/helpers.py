"""Shared blueprint helpers.

json_object_body: request body as a dict, tuple-return pattern
"""

from flask import request

from togglelabs.utils.errors import E, api_error


def json_object_body():
    """Return the request's JSON body when it is an object.

    Success: (dict, None). A missing or unparseable body counts as ``{}``.
    Failure: (None, (response, 422)) for arrays and scalars.

        data, err = json_object_body()
        if err:
            return err
    """
    data = request.get_json(silent=True)
    if data is None:
        return {}, None
    if not isinstance(data, dict):
        return None, api_error(E.VALIDATION_INVALID, "Request body must be a JSON object")
    return data, None
