"""Instance lifecycle: readiness detection, retry policy and the controller.

The controller lives in mongomem.lifecycle.server; it is not re-exported
here because mongomem.infra imports the readiness module from this package.
"""
