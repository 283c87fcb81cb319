#!/usr/bin/env python3
"""
BingCLI: command-line wrapper for the Bing spell-check and web-search APIs.

Commands:
  spell   check a sentence, print the raw response or the corrected text
  search  run a web search and print the raw response
  site    search one site and print (or open) the first result
"""

import os, sys, json, logging, argparse, configparser
import importlib.util

import bing_api

SCRIPT_DIR = os.path.dirname(os.path.abspath(__file__))
LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'
logger = logging.getLogger(__name__)

GREEN = "\033[92m"
YELLOW = "\033[93m"
RESET = "\033[0m"

EXIT_OK, EXIT_API_FAILURE, EXIT_USAGE = 0, 1, 2


def setup_logging(verbose=False):
    """Configure root logging for the CLI."""
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO, format=LOG_FORMAT)


def load_config(config_path=None):
    """Load application configuration, writing defaults on first run."""
    config_path = config_path or os.path.join(SCRIPT_DIR, "config.ini")
    config = configparser.ConfigParser()
    if not os.path.exists(config_path):
        defaults = bing_api.Settings()
        config['API'] = {
            'api_key': '',
            'spellcheck_endpoint': defaults.spellcheck_endpoint,
            'search_endpoint': defaults.search_endpoint,
            'timeout': str(defaults.timeout),
        }
        config['Search'] = {
            'market': defaults.market,
            'safe_search': defaults.safe_search,
            'count': str(defaults.count),
            'offset': str(defaults.offset),
            'site': defaults.site,
        }
        config['Browser'] = {'path': defaults.browser_path}
        config['Plugins'] = {'enabled': 'true'}
        try:
            with open(config_path, 'w') as f: config.write(f)
            logger.info(f"Created default configuration at {config_path}")
        except OSError as e: logger.warning(f"Could not write default config to {config_path}: {e}")
    config.read(config_path)

    if not config.has_section('API'): config['API'] = {}
    api_key_env = os.environ.get('BING_API_KEY')
    if api_key_env and not config.get('API', 'api_key', fallback=''):
        config['API']['api_key'] = api_key_env
        logger.debug("Using Bing API key from environment variable")
    return config


def load_plugins(plugins_dir=None):
    """Load plugins from the plugins directory."""
    plugins_dir = plugins_dir or os.path.join(SCRIPT_DIR, "plugins")
    loaded_plugins = {}
    if not os.path.isdir(plugins_dir):
        logger.debug(f"Plugins directory not found: {plugins_dir}")
        return loaded_plugins
    for filename in sorted(os.listdir(plugins_dir)):
        if filename.endswith(".py") and not filename.startswith("_"):
            plugin_path = os.path.join(plugins_dir, filename)
            try:
                spec = importlib.util.spec_from_file_location("plugin_module", plugin_path)
                if spec and spec.loader:
                    module = importlib.util.module_from_spec(spec)
                    spec.loader.exec_module(module)
                    if hasattr(module, "Plugin"):
                        loaded_plugins[filename] = module.Plugin()
                        logger.debug(f"Loaded plugin: {filename}")
                    else: logger.warning(f"No 'Plugin' class found in: {filename}")
            except Exception as e: logger.error(f"Error loading plugin {filename}: {e}")
    return loaded_plugins


def process_text_with_plugins(text, plugins):
    """Pass text through plugins."""
    for plugin in plugins.values():
        text = plugin.execute(text)
    return text


def highlight_corrections(correction):
    """Return the corrected text with every replaced word coloured."""
    return "".join(
        f"{GREEN}{segment.text}{RESET}" if segment.replaced else segment.text
        for segment in correction.segments
    )


def format_correction_report(correction):
    """Numbered list of the corrections that were applied."""
    if not correction.applied_corrections:
        return "No spelling errors detected!"
    lines = []
    for i, c in enumerate(correction.applied_corrections, 1):
        times = f" (x{c.occurrences})" if c.occurrences > 1 else ""
        lines.append(f"{i}. {YELLOW}{c.original_token}{RESET} -> {GREEN}{c.replacement}{RESET}{times}")
    return "\n".join(lines)


def report_failure(result):
    print(f"Error: {result.message}", file=sys.stderr)
    return EXIT_API_FAILURE


def cmd_spell(args, api_key, settings):
    """Spell check a sentence."""
    if not (args.correct_only or args.highlight):
        result = bing_api.spell_check(args.text, api_key, mode=args.mode, settings=settings)
        if not result.ok: return report_failure(result)
        print(json.dumps(result.data, indent=2))
        return EXIT_OK

    result = bing_api.correct_text(args.text, api_key, mode=args.mode, settings=settings)
    if not result.ok: return report_failure(result)
    correction = result.data
    if args.highlight:
        print(highlight_corrections(correction))
        print()
        print(format_correction_report(correction))
    else:
        print(correction.corrected_text)
    return EXIT_OK


def cmd_search(args, api_key, settings):
    """Run a web search and print the raw response."""
    result = bing_api.web_search(
        args.query, api_key, site=args.site, settings=settings,
        count=args.count, offset=args.offset, market=args.market, safe_search=args.safe_search,
    )
    if not result.ok: return report_failure(result)
    print(json.dumps(result.data, indent=2))
    return EXIT_OK


def cmd_site(args, api_key, settings):
    """Search one site and print or open the first result."""
    result = bing_api.site_search(args.query, api_key, site=args.site, settings=settings)
    if not result.ok: return report_failure(result)
    url = result.data
    if url is None:
        print("No results found.")
        return EXIT_OK
    print(url)
    if args.open: bing_api.open_in_browser(url, browser_path=settings.browser_path or None)
    return EXIT_OK


def build_parser():
    parser = argparse.ArgumentParser(prog="bing", description="Bing spell check and web search from the command line")
    parser.add_argument('-k', '--key', help="API subscription key (else config.ini, else BING_API_KEY)")
    parser.add_argument('--config', help="Path to config.ini")
    parser.add_argument('--no-plugins', action='store_true', help="Do not pass input through plugins")
    parser.add_argument('-v', '--verbose', action='store_true', help="Debug logging")
    sub = parser.add_subparsers(dest='command', required=True)

    spell = sub.add_parser('spell', help="Check the spelling of a sentence")
    spell.add_argument('text')
    spell.add_argument('-m', '--mode', default='proof', choices=bing_api.SPELL_MODES)
    output = spell.add_mutually_exclusive_group()
    output.add_argument('-c', '--correct-only', action='store_true', help="Print only the corrected text")
    output.add_argument('--highlight', action='store_true', help="Print the corrected text with changes highlighted")
    spell.set_defaults(handler=cmd_spell, input_attr='text')

    search = sub.add_parser('search', help="Web search")
    search.add_argument('query')
    search.add_argument('--count', type=int)
    search.add_argument('--offset', type=int)
    search.add_argument('--market')
    search.add_argument('--safe-search', choices=bing_api.SAFE_SEARCH_LEVELS)
    search.add_argument('--site', help="Restrict results to one site")
    search.set_defaults(handler=cmd_search, input_attr='query')

    site = sub.add_parser('site', help="Search one site and show the first result")
    site.add_argument('query')
    site.add_argument('--site', help="Site to search (default from config)")
    site.add_argument('-o', '--open', action='store_true', help="Open the first result in the browser")
    site.set_defaults(handler=cmd_site, input_attr='query')
    return parser

def wants_plugins(args):
    """Raw spell output always reports on the sentence exactly as typed."""
    if args.command == 'spell':
        return args.correct_only or args.highlight
    return True


def main(argv=None):
    """Main function."""
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)
    config = load_config(args.config)
    settings = bing_api.Settings.from_config(config)

    api_key = args.key or config.get('API', 'api_key', fallback='')
    if not api_key:
        print("Error: no API key. Use --key, set api_key in config.ini, or set BING_API_KEY.", file=sys.stderr)
        return EXIT_USAGE

    if not args.no_plugins and wants_plugins(args) and config.getboolean('Plugins', 'enabled', fallback=True):
        plugins = load_plugins()
        original = getattr(args, args.input_attr)
        setattr(args, args.input_attr, process_text_with_plugins(original, plugins))

    try:
        return args.handler(args, api_key, settings)
    except bing_api.InvalidArgumentError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_USAGE


if __name__ == "__main__":
    sys.exit(main())
