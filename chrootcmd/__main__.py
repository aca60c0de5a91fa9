"""
Run a program under a different root directory with chroot(1)

Assembles the chroot command line from a config file and/or command line
flags and then either replaces this process with it or runs it as a child
process. The chroot program itself does the actual work and must be run with
root privileges.
"""

import argparse
import io
import logging
import sys

import chrootcmd


# NOTE: these are positional, or not settable from the command line at all
POSITIONAL_KEYS = ('rootfs', 'program', 'args', 'env')


def get_parser(config):
  parser = argparse.ArgumentParser(prog='chrootcmd', description=__doc__)
  parser.add_argument('-v', '--version', action='version',
                      version=chrootcmd.VERSION)
  parser.add_argument('-l', '--log-level', default='info',
                      choices=['debug', 'info', 'warning', 'error'],
                      help='Set the verbosity of messages')
  parser.add_argument('-s', '--subprocess', action='store_true',
                      help='use subprocess instead of exec')
  parser.add_argument('-n', '--dry-run', action='store_true',
                      help='print the chroot command line and exit')
  parser.add_argument('-c', '--config', help='Path to config file')
  parser.add_argument('--dump-config', action='store_true',
                      help='Dump default config and exit')

  for key, value in config.items():
    helpstr = chrootcmd.VARDOCS.get(key, None)
    if key in POSITIONAL_KEYS:
      continue
    # NOTE: default None keeps "not given" apart from an explicit value, so
    # the config file is only overridden when a flag is actually passed
    elif isinstance(value, bool):
      flag = key.replace('_', '-')
      parser.add_argument('--' + flag, dest=key, action='store_const',
                          const=True, default=None, help=helpstr)
      parser.add_argument('--no-' + flag, dest=key, action='store_const',
                          const=False, default=None,
                          help='Negates --{}'.format(flag))
    elif isinstance(value, (str, int, float)) or value is None:
      parser.add_argument('--' + key.replace('_', '-'), help=helpstr)
    # NOTE: nargs='*' would swallow the positional rootfs, so lists are built
    # by repeating the flag. Unspecified stays None and is ignored on merge.
    elif isinstance(value, (list, tuple)):
      parser.add_argument('--' + key.replace('_', '-'), action='append',
                          help=helpstr)

  parser.add_argument('rootfs', nargs='?',
                      help='path of the rootfs to enter')
  parser.add_argument('program', nargs='?',
                      help='program to run inside the rootfs')
  parser.add_argument('args', nargs=argparse.REMAINDER,
                      help='arguments for the program')
  return parser


def load_config(argv=None):
  """
  Parse the command line, merge it over the config file (if any) and return
  the tuple ``(args, config)``.
  """
  config = chrootcmd.Main().as_dict()
  parser = get_parser(config)
  args = parser.parse_args(argv)

  if args.dump_config:
    return args, config

  logging.getLogger().setLevel(getattr(logging, args.log_level.upper()))

  if args.config:
    with io.open(args.config, encoding='utf8') as infile:
      # pylint: disable=W0122
      exec(infile.read(), config)

  # NOTE: with no program, everything after the rootfs was an option the user
  # meant for us, not for the program
  if args.program is None and args.args:
    parser.error('unexpected arguments after rootfs: {} (options must come'
                 ' before the rootfs)'.format(' '.join(args.args)))

  # a program from the command line brings its own argument list
  for key, value in vars(args).items():
    if key == 'args' and args.program is None:
      continue
    if value is not None and key in config:
      config[key] = value

  knownkeys = chrootcmd.Main.get_field_names()
  unknownkeys = []
  for key in config:
    if key.startswith('_'):
      continue

    if key in knownkeys:
      continue

    unknownkeys.append(key)

  if unknownkeys:
    logging.warning("Unrecognized config variables: %s",
                    ", ".join(unknownkeys))

  if not config.get('rootfs'):
    parser.error('a rootfs is required, either on the command line or in the'
                 ' config file')

  return args, config


def main(argv=None):
  format_str = '%(levelname)-4s %(filename)s[%(lineno)-3s] : %(message)s'
  logging.basicConfig(level=logging.INFO,
                      format=format_str,
                      datefmt='%Y-%m-%d %H:%M:%S',
                      filemode='w')

  args, config = load_config(argv)
  if args.dump_config:
    chrootcmd.dump_config(sys.stdout)
    return 0

  mainobj = chrootcmd.Main(**config)
  invocation = mainobj.make_invocation()

  if args.dry_run:
    sys.stdout.write(str(invocation) + '\n')
    return 0

  try:
    if args.subprocess:
      return invocation.subprocess()
    # replace this process with chroot
    invocation()
  except OSError as err:
    logging.error("Failed to start %s: %s", invocation.program, err)
    return 1

  logging.error("Failed to start %s", invocation.program)
  return 1


if __name__ == '__main__':
  sys.exit(main())
