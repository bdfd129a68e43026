#!/usr/bin/env python3
"""
Command-line interface for jxr - static site generator.
"""

import sys
import argparse
from typing import List, Optional

from . import __version__
from .core import Jxr
from .errors import JxrError, format_error_chain
from .settings import JxrSettings


def main(argv: Optional[List[str]] = None) -> None:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(prog='jxr', description='Generate a static site.')
    parser.add_argument('path', nargs='?', default='.',
                        help='Source directory containing markdown files and templates')
    parser.add_argument('-o', '--output', type=str,
                        help='Output directory for generated site')
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Verbose mode')
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')

    args = parser.parse_args(argv)

    try:
        # Load settings from the source root, command line arguments take precedence
        settings_loader = JxrSettings(args.path)
        settings_loader.load_settings()
        final_settings = settings_loader.merge_with_args({'output': args.output})

        generator = Jxr(
            root_path=args.path,
            output_path=final_settings['output'],
            template_extension=final_settings['template_extension'],
            listing_template=final_settings['listing_template'],
            default_layout=final_settings['default_layout'],
            root_layout=final_settings['root_layout'],
            defaults_file=final_settings['defaults_file'],
            verbose=args.verbose,
            log_file=final_settings['log_file'],
        )
        generator.build()
    except JxrError as e:
        print(format_error_chain(e), file=sys.stderr)
        sys.exit(1)


if __name__ == '__main__':
    main()
