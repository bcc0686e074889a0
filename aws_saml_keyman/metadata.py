# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
# http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
#
# Copyright 2018 Nextdoor.com, Inc
# Copyright 2018 Nathan V


__version__ = '0.1.0'
__desc__ = 'AWS SAML Keyman'
__desc_long__ = ('''
===============
AWS SAML Keyman
===============
AWS SAML Keyman turns a captured AWS SAMLResponse into temporary AWS
credentials. Every role granted by the assertion is exchanged with STS
(AssumeRoleWithSAML) in parallel and the results are saved in
~/.aws/credentials for use with other software.''')
