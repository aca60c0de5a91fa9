"""
Build invocations of the coreutils chroot(1) program.

The builder here only assembles the argument vector. Entering the new root,
switching identity and starting the program are all done by the external
``chroot`` binary when the caller launches the resulting invocation. Running
``chroot`` requires root privileges.

See: https://www.gnu.org/software/coreutils/chroot
"""

import inspect
import logging
import os
import pprint
import shlex
import subprocess
import textwrap

VERSION = '0.1.0'

CHROOT_BIN = 'chroot'


def serialize(obj):
  """
  Return a serializable representation of the object. If the object has an
  `as_dict` method, then it will call and return the output of that method.
  Otherwise return the object itself.
  """
  if hasattr(obj, 'as_dict'):
    fun = getattr(obj, 'as_dict')
    if callable(fun):
      return fun()

  return obj


class ConfigObject(object):
  """
  Provides simple serialization to a dictionary based on the assumption that
  all args in the __init__() function are fields of this object.
  """

  @classmethod
  def get_field_names(cls):
    """
    The order of fields in the tuple representation is the same as the order
    of the fields in the __init__ function
    """

    # NOTE: args[0] is `self`
    return inspect.getfullargspec(cls.__init__).args[1:]

  def as_dict(self):
    """
    Return a dictionary mapping field names to their values only for fields
    specified in the constructor
    """
    return {field: serialize(getattr(self, field))
            for field in self.get_field_names()}


def get_default(obj, default):
  """
  If obj is not `None` then return it. Otherwise return default.
  """
  if obj is None:
    return default

  return obj


def process_environment(env_dict):
  """Given an environment dictionary, merge any lists with pathsep and return
     the new dictionary."""
  out_dict = {}
  for key, value in env_dict.items():
    if isinstance(value, (list, tuple)):
      out_dict[key] = ':'.join(value)
    elif isinstance(value, str):
      out_dict[key] = value
    else:
      out_dict[key] = str(value)
  return out_dict


class Options(ConfigObject):
  """
  The flags that will be passed to chroot, kept as discrete fields until the
  invocation is built.
  """

  def __init__(self, skip_chdir=False, user_spec=None,
               supplementary_groups=None, **_):
    self.skip_chdir = bool(skip_chdir)
    self.user_spec = user_spec
    if supplementary_groups:
      self.supplementary_groups = list(supplementary_groups)
    else:
      self.supplementary_groups = None


class Invocation(ConfigObject):
  """
  A program name and its argument list, ready to hand to exec or subprocess.
  """

  def __init__(self, program=CHROOT_BIN, args=None, env=None, **_):
    self.program = program
    self.args = list(get_default(args, []))
    if env is not None:
      self.env = process_environment(env)
    else:
      self.env = None

  @property
  def argv(self):
    return [self.program] + self.args

  def arg(self, value):
    """Append one argument for the program run inside the root."""
    self.args.append(os.fspath(value))
    return self

  def extend(self, values):
    """Append several arguments for the program run inside the root."""
    for value in values:
      self.arg(value)
    return self

  def __str__(self):
    return ' '.join(shlex.quote(part) for part in self.argv)

  def __repr__(self):
    return 'Invocation({!r})'.format(self.argv)

  def __eq__(self, other):
    if not isinstance(other, Invocation):
      return NotImplemented
    return self.argv == other.argv and self.env == other.env

  def __call__(self):
    """Replace the current process with the invocation."""
    logging.debug("exec: %s", self)
    if self.env is None:
      return os.execvp(self.program, self.argv)
    return os.execvpe(self.program, self.argv, self.env)

  def subprocess(self, **kwargs):
    """Run the invocation as a child process and return its exit status."""
    logging.debug("subprocess: %s", self)
    if self.env is not None:
      kwargs.setdefault('env', self.env)
    return subprocess.call(self.argv, **kwargs)


class Chroot(object):
  """
  Fluent builder for a chroot(1) invocation. Each setter mutates the builder
  and returns it so calls can be chained::

    Chroot.new().user_and_group('nvzqz', 'everyone') \\
        .build_invocation('/path/to/root', 'ls', ['/']).subprocess()

  The user spec is overwritten by every call to `user` or `user_and_group`.
  Supplementary groups are only assigned by a non-empty sequence.
  """

  def __init__(self, options=None):
    self.options = get_default(options, Options())

  @classmethod
  def new(cls):
    return cls()

  def copy(self):
    return Chroot(Options(**self.options.as_dict()))

  def skip_chdir(self):
    """Do not change the working directory to `/` after entering the root."""
    self.options.skip_chdir = True
    return self

  def user(self, user):
    """Run as `user`, replacing any earlier user spec."""
    self.options.user_spec = os.fspath(user)
    return self

  def user_and_group(self, user, group):
    """Run as `user` with primary `group` (ID or name)."""
    self.options.user_spec = '{}:{}'.format(os.fspath(user), os.fspath(group))
    return self

  def groups(self, groups):
    """Set supplementary groups. An empty sequence leaves them untouched."""
    groups = [os.fspath(group) for group in groups]
    if groups:
      self.options.supplementary_groups = groups
    return self

  def arguments(self):
    """Return the chroot flags, in the order chroot expects them."""
    args = []
    if self.options.skip_chdir:
      args.append('--skip-chdir')
    if self.options.user_spec is not None:
      args.append('--userspec=' + self.options.user_spec)
    if self.options.supplementary_groups:
      args.append('--groups=' + ','.join(self.options.supplementary_groups))
    return args

  def build_invocation(self, root, program, extra_args=None, env=None):
    """
    Return an `Invocation` of chroot that runs `program` with `extra_args`
    using `root` as `/`. Nothing is checked here: a missing root, an unknown
    user or group are reported by chroot itself when it is run.
    """
    args = self.arguments()
    args.append(os.fspath(root))
    args.append(os.fspath(program))
    invocation = Invocation(CHROOT_BIN, args, env)
    invocation.extend(get_default(extra_args, []))
    logging.debug("Built invocation: %s", invocation)
    return invocation

  def command(self, root, program):
    return self.build_invocation(root, program)

  def __repr__(self):
    return 'Chroot({})'.format(', '.join(
        '{}={!r}'.format(key, value)
        for key, value in sorted(self.options.as_dict().items())))


DEFAULT_PROGRAM = '/bin/sh'


class Main(ConfigObject):
  """
  Everything needed to go from a config file or command line to a chroot
  invocation.
  """

  def __init__(self,
               rootfs=None,
               skip_chdir=False,
               user=None,
               group=None,
               groups=None,
               program=None,
               args=None,
               env=None,
               **_):
    self.rootfs = rootfs
    self.skip_chdir = bool(skip_chdir)
    self.user = user
    self.group = group
    self.groups = get_default(groups, [])
    self.program = get_default(program, DEFAULT_PROGRAM)
    self.args = get_default(args, [])
    self.env = env

  def make_chroot(self):
    chroot = Chroot()
    if self.skip_chdir:
      chroot.skip_chdir()

    if self.user is not None and self.group is not None:
      chroot.user_and_group(str(self.user), str(self.group))
    elif self.user is not None:
      chroot.user(str(self.user))
    elif self.group is not None:
      logging.warning("Ignoring group '%s' because no user was given",
                      self.group)

    return chroot.groups(str(group) for group in self.groups)

  def make_invocation(self):
    return self.make_chroot().build_invocation(
        self.rootfs, self.program, self.args, self.env)


VARDOCS = {
    "rootfs": "The directory to chroot into",
    "skip_chdir":
    "Do not change the working directory to / after entering the root",
    "user": "Run the program as this user (ID or name)",
    "group":
    "Primary group (ID or name) for the program. Only used together with"
    " `user`.",
    "groups":
    "List of supplementary groups (IDs or names) for the program",
    "program": "The program to execute inside the new root",
    "args": "Additional arguments passed to the program",
    "env":
    """
The environment of the chroot process. Use an empty dictionary for an
empty environment, or None to use the host environment.
Any environment variable encountered as a list will be join()ed using
path separator (':')
""",
}


def format_config_value(value):
  """Return python source for ``value`` as it should appear in a config file."""
  return pprint.pformat(value, indent=2, width=78)


def dump_config(outfile, config=None):
  """
  Write ``config`` (the defaults if not given) to ``outfile`` as a python
  config file that can be loaded back with ``chrootcmd -c``.
  """
  config = get_default(config, Main().as_dict())

  outfile.write('# chrootcmd {} configuration\n\n'.format(VERSION))
  for key in Main.get_field_names():
    for line in textwrap.wrap(VARDOCS[key], 78):
      outfile.write('# {}\n'.format(line))
    outfile.write('{} = {}\n\n'.format(key, format_config_value(config[key])))
