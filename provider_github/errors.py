class ProviderError(Exception):
    '''
    A resource or data source operation failed against the GitHub API. The underlying
    GithubException is chained as __cause__.
    '''
    def __init__(self, summary, detail):
        super().__init__('{}: {}'.format(summary, detail))
        self.summary = summary
        self.detail = detail

class ConfigurationError(Exception):
    '''
    Local configuration problems found before any remote call. Holds every violation rather than
    only the first.
    '''
    def __init__(self, errors):
        if isinstance(errors, str):
            errors = [errors]
        self.errors = list(errors)
        super().__init__('; '.join(self.errors))

class EncryptionError(Exception):
    pass

class UnsupportedOperationError(Exception):
    pass
