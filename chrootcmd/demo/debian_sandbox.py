# The directory to chroot into
rootfs = "/srv/chroot/bookworm"

# Do not change the working directory to / after entering the root
skip_chdir = False

# Run the program as this user (ID or name)
user = "builder"

# Primary group (ID or name) for the program. Only used together with `user`.
group = "builder"

# List of supplementary groups (IDs or names) for the program
groups = ["sudo", "adm"]

# The program to execute inside the new root
program = "/bin/bash"

# Additional arguments passed to the program
args = ["--login"]

# The environment of the chroot process. Use an empty dictionary for an
# empty environment, or None to use the host environment.
env = {
    # Any environment variable encountered as a list will be join()ed using
    # path separator (':')
    "PATH": [
        "/usr/local/bin",
        "/usr/sbin",
        "/usr/bin",
        "/sbin",
        "/bin"
    ],
    "DEBIAN_FRONTEND": "noninteractive",
    "LC_ALL": "C",
    "LANG": "C"
}
