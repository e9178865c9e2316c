"""Read the GSF Android ID needed to certify a container with Google."""

from reddock.core.runtime import ContainerRuntime
from reddock.exceptions import RegistrationError

GSERVICES_DB = "/data/data/com.google.android.gsf/databases/gservices.db"
ANDROID_ID_QUERY = "select value from main where name = 'android_id';"
SQLITE_BINARIES = ("sqlite3", "/system/xbin/sqlite3")

CERTIFICATION_URL = "https://www.google.com/android/uncertified/"


def fetch_android_id(runtime: ContainerRuntime, container: str) -> str:
    """Query gservices.db inside ``container`` for the GSF Android ID.

    Tries ``sqlite3`` from PATH first, then ``/system/xbin/sqlite3``.

    Raises:
        RegistrationError: If the query fails or returns nothing.
    """
    output = ""
    for sqlite in SQLITE_BINARIES:
        command = f'{sqlite} {GSERVICES_DB} "{ANDROID_ID_QUERY}"'
        result = runtime.exec(container, ["sh", "-c", command])
        output = result.combined.strip()
        if result.success:
            break
    else:
        raise RegistrationError(
            f"Failed to fetch Android ID: {output}\n"
            "Make sure GApps are installed and the container has been running "
            "for a few minutes."
        )

    android_id = result.output
    if not android_id:
        raise RegistrationError(
            "Android ID not found. Open the Play Store in the container at "
            "least once, then retry."
        )
    return android_id
